"""Prompt security - input sanitization and output validation.

Incoming text is untrusted: injection markers are neutralized before the
text reaches a prompt, requests for personal data and suspicious group
names get a canned joke instead of a model call, and generated output is
discarded when it leaks instructions or looks like code.
"""

from __future__ import annotations

import functools
import logging
import random
import re
from dataclasses import dataclass

from parrot.lexicons import (
    GROUP_NAME_TRICK_PATTERNS,
    INJECTION_MARKERS,
    REPLY_MARKERS,
    SUSPICIOUS_OUTPUT_MARKERS,
)

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 500
MAX_OUTPUT_CHARS = 200
NEUTRALIZED = "[...]"

_INJECTION_REGEX = re.compile("|".join(re.escape(m) for m in INJECTION_MARKERS), re.IGNORECASE)


@dataclass(frozen=True)
class DeflectionRule:
    """Phrases that fish for one kind of personal data, and the jokes used to dodge."""

    category: str
    patterns: tuple[str, ...]
    responses: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return _compile_phrases(self.patterns).search(text) is not None


@functools.lru_cache(maxsize=None)
def _compile_phrases(phrases: tuple[str, ...]) -> re.Pattern[str]:
    """Whole-word alternation over ``phrases``."""
    alternation = "|".join(re.escape(p) for p in sorted(phrases, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


PERSONAL_INFO_RULES: tuple[DeflectionRule, ...] = (
    DeflectionRule(
        "financial",
        (
            "número do cartão", "numero do cartao", "cartão de crédito", "cartao de credito",
            "conta bancária", "conta bancaria", "dados bancários", "dados bancarios",
            "pix", "chave pix", "me passa o pix", "manda o pix", "qual seu pix",
            "credit card", "bank account", "bank details", "card number",
            "senha do banco", "password", "senha", "pin",
        ),
        (
            "Meu pix é: doe-para-um-programador-cansado@caridade.com 😂",
            "Claro! Meu cartão é 1234-NICE-TRY-HAHA, validade: nunca, CVV: 😜",
            "Meus dados bancários estão guardados junto com a fórmula da Coca-Cola 🤫",
            "Posso te dar meu pix imaginário, aceita sonhos? 💭",
            "Minha senha é: SenhaForte123... brincadeira, é só 123456 como todo mundo 😅",
            "Opa, esses dados eu só passo depois de 3 cervejas e mesmo assim eu minto 🍺",
        ),
    ),
    DeflectionRule(
        "address",
        (
            "onde você mora", "onde vc mora", "onde tu mora", "seu endereço", "seu endereco",
            "qual seu endereço", "qual seu endereco", "me passa seu endereço",
            "where do you live", "your address", "home address",
            "onde é sua casa", "onde é tua casa",
        ),
        (
            "Moro na nuvem, AWS região São Paulo, container docker 42 🐳",
            "Rua dos Desenvolvedores, 404 - Not Found 🏠",
            "Moro no mesmo lugar que o Wally, boa sorte achando 🔍",
            "Endereço: localhost:3000, bem-vindo! 💻",
            "Moro logo ali depois de Nárnia, segunda porta à esquerda 🚪",
            "Se eu te contar, vou ter que te adicionar no meu plano de internet 📶",
        ),
    ),
    DeflectionRule(
        "phone",
        (
            "seu número", "seu numero", "teu número", "teu numero",
            "me passa seu número", "qual seu telefone", "qual teu telefone",
            "your phone", "phone number", "whats your number",
            "me liga", "vou te ligar",
        ),
        (
            "Meu número é 0800-NAO-PERTURBE 📞",
            "(00) 91234-NOPE, pode ligar! 😂",
            "Meu número favorito é o 42, serve? É a resposta pra tudo! 🌌",
            "Posso te dar o número do meu psicólogo, ele tá precisando de clientes 🛋️",
            "Claro! É π... 3.14159265358979... quer que eu continue? 🥧",
        ),
    ),
    DeflectionRule(
        "documents",
        (
            "seu cpf", "teu cpf", "me passa o cpf", "qual seu cpf",
            "seu rg", "teu rg", "documento", "identidade",
            "social security", "ssn", "id number",
        ),
        (
            "Meu CPF é 123.456.789-00... espera, isso é do Ronaldinho né? 🤔",
            "CPF? Só se for Código Para Felicidade: CERVEJA-GELADA ❄️🍺",
            "Meu RG é classificado, nível Área 51 👽",
            "Te passo meu CPF junto com o mapa do tesouro do Faustão 🗺️",
            "Documento? Só mostro com ordem judicial e um café ☕",
        ),
    ),
    DeflectionRule(
        "credentials",
        (
            "sua senha", "tua senha", "me passa a senha", "qual a senha",
            "seu login", "teu login", "email e senha", "acesso",
            "your password", "login credentials",
        ),
        (
            "Minha senha é: ********** (é isso mesmo, 10 asteriscos) 🌟",
            "Senha: AmoMeuCachorro123 - ah não, essa é a do meu ex 🐕",
            "Login: admin / Senha: admin - sempre funciona nos tutoriais 😂",
            "Minha senha tem 47 caracteres, emoji de unicórnio e uma lágrima 🦄😢",
        ),
    ),
    DeflectionRule(
        "profile",
        (
            "me conta tudo sobre você", "fala tudo sobre você",
            "seus dados pessoais", "informações pessoais",
            "tell me everything about you", "personal information",
        ),
        (
            "Sou Geminiano com ascendente em Café e lua em Netflix 🌙☕",
            "Dados pessoais: 1.80m de pura ansiedade encapsulada 📊",
            "Bio completa: nasci, sofri com JavaScript, e estou aqui 💀",
            "Sobre mim: converto café em código e frustrações em commits 😅",
        ),
    ),
)

GROUP_NAME_TRICK_RESPONSES: tuple[str, ...] = (
    "Vixi, renomearam o grupo pra tentar me hackear? Vocês são criativos, hein! 😂🔐",
    "Ahá! Acharam que renomear o grupo ia me enganar? Nice try! 🕵️",
    "Esse nome de grupo tá muito suspeito... vocês tão de sacanagem né? 😏",
    "Hackers de grupo de WhatsApp detected! Alerta vermelho! 🚨😂",
    "Pode mudar o nome do grupo pra 'Me dá sua senha' que também não vai funcionar 🤷‍♂️",
    "A tentativa foi boa, mas meu firewall de piadas está ativo! 🛡️😄",
    "Social engineering via grupo? Vocês merecem um troféu de criatividade! 🏆",
    "Calma lá hackers, eu só respondo mensagens, não leio nome de grupo 😜... ops",
)


# =============================================================================
# Input
# =============================================================================


def sanitize_input(message: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    """Neutralize injection markers and cap the length.

    Matching is case-insensitive; every marker occurrence becomes "[...]".
    """
    sanitized, replaced = _INJECTION_REGEX.subn(NEUTRALIZED, message)
    if replaced:
        logger.info("Neutralized %d injection marker(s) in incoming message", replaced)
    return sanitized[:max_chars]


def check_personal_info_request(message: str, rng: random.Random | None = None) -> str | None:
    """A joke reply if ``message`` asks for personal data, else None."""
    for rule in PERSONAL_INFO_RULES:
        if rule.matches(message):
            logger.info("Personal info request detected (%s)", rule.category)
            return (rng or random).choice(rule.responses)
    return None


def is_group_name_trick(group_name: str) -> bool:
    lower = group_name.lower()
    return any(pattern in lower for pattern in GROUP_NAME_TRICK_PATTERNS)


def check_group_name_trick(group_name: str, rng: random.Random | None = None) -> str | None:
    """A joke reply if a group was renamed to smuggle in instructions, else None."""
    if not is_group_name_trick(group_name):
        return None
    logger.info("Suspicious group name detected: %r", group_name)
    return (rng or random).choice(GROUP_NAME_TRICK_RESPONSES)


def is_mentioned(user_name: str, message: str, min_name_length: int = 3) -> bool:
    """True if a group message mentions or replies to the person.

    Names shorter than ``min_name_length`` only count as @mentions.
    """
    lower = message.lower()
    name = user_name.strip().lower()
    first_name = name.split()[0] if name else ""

    patterns: list[str] = []
    if name:
        patterns.append(f"@{name}")
    if first_name:
        patterns.append(f"@{first_name}")
    if len(name) >= min_name_length:
        patterns.append(name)
    if len(first_name) >= min_name_length:
        patterns += [
            first_name,
            f"{first_name},",
            f"{first_name}?",
            f"e aí {first_name}",
            f"ei {first_name}",
            f"fala {first_name}",
            f"ô {first_name}",
        ]

    if any(pattern in lower for pattern in patterns):
        return True
    return any(marker in lower for marker in REPLY_MARKERS)


# =============================================================================
# Output
# =============================================================================


def clean_response(response: str, user_name: str = "Me", max_chars: int = MAX_OUTPUT_CHARS) -> str:
    """Validate and tidy generated text.

    Strips a leading speaker label, rejects output containing a suspicious
    marker (returns ""), and truncates to ``max_chars``, cutting after the
    last period inside the limit when there is one.
    """
    cleaned = response.strip()

    name = user_name.strip()
    prefixes = [f"{name}:"]
    if " " in name:
        prefixes.append(f"{name.split()[0]}:")
    prefixes.append("Me:")
    for prefix in prefixes:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix) :]
    cleaned = cleaned.strip()

    lower = cleaned.lower()
    for marker in SUSPICIOUS_OUTPUT_MARKERS:
        if marker.lower() in lower:
            logger.warning("Generated reply blocked (contains %r)", marker)
            return ""

    if len(cleaned) > max_chars:
        head = cleaned[:max_chars]
        cut = head.rfind(".")
        cleaned = head[: cut + 1] if cut > 0 else head

    return cleaned
