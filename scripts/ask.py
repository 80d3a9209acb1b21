"""
Send a single message to Bedrock from the command line, bypassing the HTTP API.
Useful to check credentials, region and model access.

Usage:
    python -m scripts.ask "Quais vagas combinam com um dev Python sênior?"
    python -m scripts.ask --mode substituicao_profissional "Quem substitui a Ana no squad de dados?"
    python -m scripts.ask --check            # show configured sources, no call
"""
import json
import sys

from src import config
from src.bedrock.client import BedrockClient
from src.bedrock.credentials import credential_sources
from src.chat.chat_logic import answer, validate_request
from src.chat.prompts import DEFAULT_MODE


def main():
    args = sys.argv[1:]

    if "--check" in args:
        print(json.dumps({**credential_sources(), **config.feature_flags()}, indent=2))
        return

    mode = DEFAULT_MODE
    if "--mode" in args:
        i = args.index("--mode")
        mode = args[i + 1] if i + 1 < len(args) else ""
        del args[i:i + 2]

    try:
        message, mode = validate_request(" ".join(args), mode)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(2)

    settings = config.load_settings()
    print(f"Region: {settings.region}  Model: {settings.model_id}")
    print(answer(message, [], mode, settings, BedrockClient(settings)))


if __name__ == "__main__":
    main()
