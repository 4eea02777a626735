"""Query resolvers for ted.

A provider turns a natural-language request into shell commands.  Two
request shapes are supported:

* ``agent`` – a single command plus a short explanation
  (:class:`AgentResponse`).
* ``ask`` – several alternative commands, each with a description
  (:class:`AskResponse`).

Supported providers:

* ``GeminiProvider`` – calls Google Gemini through the ``google-genai``
  SDK, asking for JSON that matches a response schema.
* ``MockProvider`` – answers from a small table of keyword heuristics.
  Useful offline and in tests; it never touches the network.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

ASK_OPTION_COUNT = 3

AGENT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "command": {
            "type": "STRING",
            "description": "The executable command that accomplishes the task",
        },
        "explanation": {
            "type": "STRING",
            "description": "Brief explanation of what the command does",
        },
    },
    "required": ["command", "explanation"],
}

ASK_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "commands": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "command": {"type": "STRING", "description": "The command to execute"},
                    "description": {
                        "type": "STRING",
                        "description": "Description of what the command does",
                    },
                },
                "required": ["command", "description"],
            },
        },
    },
    "required": ["commands"],
}

AGENT_PROMPT = (
    'You are a helpful command-line assistant. The user wants to accomplish the following task: "{query}"\n\n'
    "Please respond with a JSON object containing the command and explanation."
)

ASK_PROMPT = (
    'The user is asking: "{question}"\n\n'
    "Please provide exactly {count} different command-line commands that help answer this question. "
    'Return a JSON object with a "commands" array.'
)


class ProviderError(Exception):
    """Raised when a provider fails to produce commands."""


@dataclass
class AgentResponse:
    command: str
    explanation: str


@dataclass
class CommandOption:
    command: str
    description: str


@dataclass
class AskResponse:
    commands: List[CommandOption] = field(default_factory=list)

    def format(self) -> str:
        """Render the options the way they are shown and recorded.

        One line per option: ``N. `command` - description``.
        """
        return "\n".join(
            f"{i}. `{option.command}` - {option.description}"
            for i, option in enumerate(self.commands, start=1)
        )


def parse_agent_response(payload: Any) -> AgentResponse:
    if not isinstance(payload, dict):
        raise ProviderError("expected a JSON object")
    command = payload.get("command")
    explanation = payload.get("explanation")
    if not isinstance(command, str) or not command.strip():
        raise ProviderError("response has no command")
    if not isinstance(explanation, str):
        raise ProviderError("response has no explanation")
    return AgentResponse(command=command.strip(), explanation=explanation.strip())


def parse_ask_response(payload: Any) -> AskResponse:
    if not isinstance(payload, dict) or not isinstance(payload.get("commands"), list):
        raise ProviderError("response has no commands array")
    options = []
    for item in payload["commands"]:
        if not isinstance(item, dict):
            raise ProviderError("command option is not an object")
        command = item.get("command")
        description = item.get("description")
        if not isinstance(command, str) or not isinstance(description, str):
            raise ProviderError("command option is missing command or description")
        options.append(CommandOption(command=command.strip(), description=description.strip()))
    if not options:
        raise ProviderError("response contains no commands")
    return AskResponse(commands=options)


class BaseProvider:
    """Abstract base class for all providers."""

    name = "base"

    def generate_agent_command(self, query: str) -> AgentResponse:
        """Return one command and an explanation for ``query``.

        :raises ProviderError: if no usable command could be produced.
        """
        raise NotImplementedError

    def generate_ask_commands(self, question: str) -> AskResponse:
        """Return several alternative commands for ``question``.

        :raises ProviderError: if no usable commands could be produced.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release provider resources.  The default does nothing."""


class GeminiProvider(BaseProvider):
    """Provider backed by the Gemini API.

    ``client`` may be passed in for testing; otherwise a
    :class:`google.genai.Client` is built from ``api_key``.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model_name: str,
        temperature: float = 0.3,
        client: Optional[Any] = None,
    ) -> None:
        if client is None and not api_key:
            raise ProviderError("Gemini API key not configured. Run 'ted settings' to set it up")
        self.model_name = model_name
        self.temperature = temperature
        self.client = client if client is not None else genai.Client(api_key=api_key)

    def _generate(self, prompt: str, schema: Dict[str, Any]) -> Any:
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=schema,
        )
        logger.debug("Requesting %s with prompt %r", self.model_name, prompt)
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
        except Exception as exc:
            logger.error("Gemini request failed: %s", exc)
            raise ProviderError(f"failed to generate content: {exc}") from exc
        text = getattr(response, "text", None)
        if not text:
            raise ProviderError("no response generated")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"failed to parse JSON response: {exc}") from exc

    def generate_agent_command(self, query: str) -> AgentResponse:
        if not query.strip():
            raise ProviderError("Empty query provided")
        payload = self._generate(AGENT_PROMPT.format(query=query.strip()), AGENT_SCHEMA)
        return parse_agent_response(payload)

    def generate_ask_commands(self, question: str) -> AskResponse:
        if not question.strip():
            raise ProviderError("Empty question provided")
        prompt = ASK_PROMPT.format(question=question.strip(), count=ASK_OPTION_COUNT)
        return parse_ask_response(self._generate(prompt, ASK_SCHEMA))

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()


# keyword set -> (command, description); the first rule whose keywords
# all appear in the request wins.
_HEURISTICS = [
    (("virtual", "environment"), "python3 -m venv .venv", "Create a Python virtual environment in .venv"),
    (("venv",), "python3 -m venv .venv", "Create a Python virtual environment in .venv"),
    (("large", "files"), "find . -type f -size +100M", "Find files larger than 100 MB below the current directory"),
    (("disk", "usage"), "df -h", "Show disk usage of mounted filesystems"),
    (("disk", "space"), "df -h", "Show free disk space of mounted filesystems"),
    (("list", "files"), "ls -la", "List all files in the current directory with details"),
    (("compress",), "tar -czf archive.tar.gz .", "Compress the current directory into a gzip tarball"),
    (("zip",), "zip -r archive.zip .", "Compress the current directory into a zip file"),
    (("git", "status"), "git status", "Show the working tree status"),
    (("process",), "ps aux", "List running processes"),
    (("memory",), "free -h", "Show memory usage"),
    (("ip", "address"), "ip addr show", "Show network interface addresses"),
]


class MockProvider(BaseProvider):
    """Provider that serves commands from keyword heuristics.

    Matching is deliberately simple: the request is lower-cased and every
    rule whose keywords all occur in it is a candidate.  ``agent`` takes
    the first candidate, ``ask`` up to :data:`ASK_OPTION_COUNT` distinct
    ones.
    """

    name = "mock"

    def _matches(self, text: str) -> List[CommandOption]:
        normalized = text.strip().lower()
        if not normalized:
            raise ProviderError("Empty query provided")
        options: List[CommandOption] = []
        seen = set()
        for keywords, command, description in _HEURISTICS:
            if command in seen:
                continue
            if all(keyword in normalized for keyword in keywords):
                seen.add(command)
                options.append(CommandOption(command=command, description=description))
        if not options:
            raise ProviderError("No matching command found")
        return options

    def generate_agent_command(self, query: str) -> AgentResponse:
        best = self._matches(query)[0]
        return AgentResponse(command=best.command, explanation=best.description)

    def generate_ask_commands(self, question: str) -> AskResponse:
        return AskResponse(commands=self._matches(question)[:ASK_OPTION_COUNT])


def get_provider(config: Dict[str, Any]) -> BaseProvider:
    """Instantiate the provider named in ``config["provider"]``.

    :raises ValueError: if the provider name is unknown.
    :raises ProviderError: if the provider cannot be initialised.
    """
    name = str(config.get("provider", "gemini")).lower().strip()
    if name == "gemini":
        return GeminiProvider(
            api_key=config.get("gemini_api_key", ""),
            model_name=config.get("model") or "gemini-2.0-flash",
            temperature=float(config.get("temperature", 0.3)),
        )
    if name == "mock":
        return MockProvider()
    raise ValueError(f"Unknown provider: {config.get('provider')}")
