# hivebot/services/protection/templates.py
"""
Подстановка плейсхолдеров в шаблоны сообщений.

Поддерживаются {{sublist}}, {{domainlist}}, {{permalink}}, {{username}}
и {{approvals}} (только для жалоб).
"""

from typing import Iterable, Optional

from hivebot.services.protection.verdict_cache import Verdict

REDACTED = "[REDACTED]"


def render(template: str, verdict: Verdict, username: str = "", approvals: Optional[int] = None) -> str:
    result = template
    result = result.replace("{{sublist}}", ", ".join(verdict.matched_communities))
    result = result.replace("{{domainlist}}", ", ".join(verdict.matched_domains))
    result = result.replace("{{permalink}}", verdict.latest_permalink or "")
    result = result.replace("{{username}}", username)
    if approvals is not None:
        result = result.replace("{{approvals}}", str(approvals))
    return result


def redact_domains(text: str, domains: Iterable[str]) -> str:
    """
    Заменяет запрещённые на платформе домены на [REDACTED].

    Если что-то заменено, в конец добавляется пометка с числом доменов.
    """
    replaced = 0
    for domain in domains:
        domain = domain.strip()
        if domain and domain in text:
            text = text.replace(domain, REDACTED)
            replaced += 1

    if replaced:
        noun = "domain" if replaced == 1 else "domains"
        text += f"\n\n*{replaced} known sitewide banned {noun} have been redacted from this comment.*"

    return text
