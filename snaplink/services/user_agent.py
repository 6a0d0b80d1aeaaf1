"""User-Agent parsing into browser, device and OS labels."""

from dataclasses import dataclass

import structlog
from user_agents import parse as parse_user_agent

from snaplink.models.visit import CLIENT_LABEL_MAX_LENGTH

logger = structlog.get_logger()

# Family reported by ua-parser when nothing matched
UNKNOWN_FAMILY = "Other"


@dataclass(frozen=True)
class ClientInfo:
    """Client details parsed from a User-Agent header."""

    browser: str | None = None
    device: str | None = None
    os: str | None = None


def _family(value: str | None) -> str | None:
    if not value or value == UNKNOWN_FAMILY:
        return None
    return value


def _fit(label: str | None) -> str | None:
    """Trim a label to the stored column width; header-derived text has no bound."""
    if label is None:
        return None
    return label[:CLIENT_LABEL_MAX_LENGTH].strip() or None


class UserAgentParser:
    """Parses raw User-Agent headers, never raising.

    Device is a form factor ("tablet", "mobile", "bot") when the header
    reveals one, otherwise "<brand> <model>" when known, otherwise None.
    Desktop browsers therefore usually have no device label.

    Usage:
        parser = UserAgentParser()
        info = parser.parse(request.headers.get("User-Agent"))
        print(info.browser, info.device, info.os)
    """

    def parse(self, raw: str | None) -> ClientInfo:
        """Parse a User-Agent header; absent or unparseable input yields all-None."""
        if not raw:
            return ClientInfo()

        try:
            agent = parse_user_agent(raw)
            return ClientInfo(
                browser=_fit(_family(agent.browser.family)),
                device=_fit(self._device(agent)),
                os=_fit(_family(agent.os.family)),
            )
        except Exception as e:
            logger.debug("User-Agent parse failed", user_agent=raw[:200], error=str(e))
            return ClientInfo()

    @staticmethod
    def _device(agent) -> str | None:
        if agent.is_tablet:
            return "tablet"
        if agent.is_mobile:
            return "mobile"
        if agent.is_bot:
            return "bot"
        brand = _family(agent.device.brand)
        if brand:
            return f"{brand} {agent.device.model or ''}".strip()
        return None


# Global parser instance
_parser: UserAgentParser | None = None


def get_user_agent_parser() -> UserAgentParser:
    """Get the global User-Agent parser instance."""
    global _parser
    if _parser is None:
        _parser = UserAgentParser()
    return _parser
