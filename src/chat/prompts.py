"""
System instructions per chat mode.
"""

MATCH_VAGAS = 'match_vagas'
SUBSTITUICAO_PROFISSIONAL = 'substituicao_profissional'

MODES = (MATCH_VAGAS, SUBSTITUICAO_PROFISSIONAL)
DEFAULT_MODE = MATCH_VAGAS

_MODE_INSTRUCTIONS = {
    MATCH_VAGAS: (
        'Você é um assistente de recrutamento. Dado o pedido do usuário, '
        'indique as vagas mais aderentes ao perfil descrito e explique brevemente o porquê.'
    ),
    SUBSTITUICAO_PROFISSIONAL: (
        'Você é um assistente de recrutamento. Dado o profissional que sai de uma posição, '
        'indique candidatos capazes de substituí-lo e explique brevemente o porquê.'
    ),
}


def build_system_prompt(mode: str, system: str | None = None, context: str | None = None) -> str:
    """
    Mode instruction, then any caller-supplied system text, then the
    retrieved knowledge-base context.
    """
    parts = [_MODE_INSTRUCTIONS[mode]]

    if system and system.strip():
        parts.append(system.strip())

    if context:
        parts.append(
            'Use apenas o contexto abaixo quando citar vagas ou profissionais. '
            'Se o contexto não tiver a resposta, diga que não encontrou.\n\n'
            f'CONTEXTO:\n{context}'
        )

    return '\n\n'.join(parts)
