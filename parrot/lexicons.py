"""Lexicon tables shared by the style analyzer, decision engine and guards.

Single source of truth for every word list the heuristics consult. The
decision engine, the style extractor, the group analyzer and the security
guards all read from here, so a fixture that exercises one exercises the
same vocabulary everywhere.

Lists are Brazilian Portuguese first with the English forms people mix in.
Bump LEXICON_VERSION whenever a table changes meaning so cached style
profiles built from an older vocabulary can be rebuilt.

Usage:
    from parrot.lexicons import GREETINGS, starts_with_any

    if starts_with_any(text.lower(), GREETINGS):
        ...
"""

from __future__ import annotations

import re

LEXICON_VERSION = 3

# =============================================================================
# Style extraction
# =============================================================================

# Ordered by priority: ties in the laugh tally go to the earlier pattern.
LAUGH_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"k{4,}", "kkkk"),
    (r"k{3}", "kkk"),
    (r"ha{2,}", "haha"),
    (r"he{2,}", "hehe"),
    (r"hi{2,}", "hihi"),
    (r"rs+", "rs"),
    (r"ks{2,}", "ksks"),
    (r"😂+", "😂"),
    (r"🤣+", "🤣"),
    (r"ksk+", "ksk"),
)

FORMAL_INDICATORS: tuple[str, ...] = (
    "você", "senhor", "senhora", "por favor", "obrigado", "obrigada",
    "bom dia", "boa tarde", "boa noite", "prezado", "atenciosamente",
    "cordialmente", "agradeço", "gostaria", "poderia",
    "please", "thank you", "kind regards", "sincerely", "would you",
)

CASUAL_INDICATORS: tuple[str, ...] = (
    "vc", "tb", "pq", "oq", "blz", "vlw", "flw", "tmj", "mano", "cara",
    "kkkk", "haha", "opa", "eai", "e ai", "fala", "ae", "po", "pô",
    "tá", "né", "tipo", "mó", "véi", "vei", "mlk", "mn", "tlgd",
    "lol", "lmao", "bro", "dude", "gonna", "wanna",
)

ABBREVIATIONS: tuple[str, ...] = (
    "vc", "tb", "pq", "oq", "q ", "n ", "hj", "td", "mt", "mto",
    "cmg", "ctg", "pra", "pro", "tá", "tô", "vcs", "qnd", "qdo",
)

FILLER_WORDS: tuple[str, ...] = (
    "tipo", "né", "sabe", "assim", "então", "entao", "aí", "ai",
    "enfim", "bom", "bem", "olha", "veja", "meio", "tal",
)

INTERJECTIONS: tuple[str, ...] = (
    "uai", "ué", "ue", "hmm", "hm", "ahh", "ah", "oh", "eita",
    "nossa", "caramba", "putz", "puts", "ixi", "opa", "ops",
    "ufa", "uhu", "eba", "afe", "aff",
)

AFFIRMATIONS: tuple[str, ...] = (
    "sim", "ss", "sss", "siiim", "aham", "uhum", "isso",
    "exato", "certo", "ok", "blz", "beleza", "pode", "bora",
    "vamo", "vamos", "dale", "fechou", "sip", "yep", "yes",
)

NEGATIONS: tuple[str, ...] = (
    "não", "nao", "n", "nn", "nope", "nop", "nunca", "jamais",
    "nem", "nada", "nenhum", "ninguem", "de jeito nenhum",
)

# Common slang the profiled person may conspicuously avoid.
NEVER_USE_CANDIDATES: tuple[str, ...] = (
    "legal", "top", "dahora", "show", "massa", "irado", "maneiro",
    "bro", "brother", "sister", "crush", "ranço", "lacrar", "mitar",
    "biscoitar", "textão", "exposed", "cancelar", "shippar",
)

STOP_WORDS: frozenset[str] = frozenset({
    "a", "o", "e", "de", "da", "do", "que", "em", "um", "uma",
    "para", "com", "no", "na", "os", "as", "por", "se", "mais",
    "foi", "são", "está", "esse", "essa", "isso", "ele", "ela",
    "eu", "me", "meu", "minha", "você", "vc", "te", "tu", "the",
    "is", "to", "i", "it", "and", "of",
})

GREETING_STARTERS: tuple[str, ...] = (
    "oi", "olá", "ola", "eai", "e ai", "e aí", "fala", "opa", "salve",
    "bom dia", "boa tarde", "boa noite", "hey", "hi", "hello", "yo",
)

CLOSINGS: tuple[str, ...] = (
    "vlw", "valeu", "flw", "falou", "tmj", "abraço", "abs", "bjs",
    "beijo", "até", "ate", "tchau", "bye", "xau", "fui",
)

ENGLISH_MIXINS: tuple[str, ...] = (
    "ok", "nice", "cool", "sorry", "thanks", "please", "whatever",
    "anyway", "deadline", "meeting", "feedback", "job", "fake",
    "random", "weekend", "delivery", "call", "bug", "deploy", "link",
    "like", "mood", "vibe", "hype", "game", "play", "online", "top",
)

EMOTIONAL_PHRASES: dict[str, tuple[str, ...]] = {
    "happy": (
        "que bom", "feliz", "adorei", "amei", "ótimo", "otimo", "maravilha",
        "que legal", "boa", "show", "perfeito", "happy", "love it",
    ),
    "sad": (
        "que pena", "triste", "poxa", "puts", "sinto muito", "chato",
        "que merda", "saudade", "sad",
    ),
    "excited": (
        "caraca", "caramba", "nossa", "meu deus", "mds", "uhu", "eba",
        "bora", "demais", "incrível", "incrivel", "omg", "wow",
    ),
    "frustrated": (
        "aff", "afe", "pqp", "saco", "droga", "que ódio", "que odio",
        "cansado", "não aguento", "nao aguento", "ugh",
    ),
}

# Preceding-message buckets for contextual reply starters.
NEWS_INDICATORS: tuple[str, ...] = (
    "sabe o que", "adivinha", "novidade", "aconteceu", "não vai acreditar",
    "nao vai acreditar", "olha isso", "viu que", "fiquei sabendo", "guess what",
)

# =============================================================================
# Response decision
# =============================================================================

QUESTION_WORDS: tuple[str, ...] = (
    "quem", "qual", "quando", "onde", "como", "porque", "por que",
    "porquê", "quanto", "quantos", "quantas", "cadê", "cade",
    "o que", "oq", "oque", "pq", "q q", "qq",
)

QUESTION_PATTERNS: tuple[str, ...] = (
    "pode me", "vc pode", "você pode", "tu pode",
    "sabe se", "sabe onde", "sabe como", "sabe quando",
    "tem como", "dá pra", "da pra", "é possível",
    "tá sabendo", "ta sabendo", "ficou sabendo",
    "viu isso", "viu que", "já viu",
)

GREETINGS: tuple[str, ...] = (
    "oi", "olá", "ola", "oie", "oii", "oiii",
    "eai", "e ai", "e aí", "eae", "eaí",
    "fala", "fala aí", "fala ai",
    "opa", "salve", "hey", "hi", "hello",
    "bom dia", "boa tarde", "boa noite",
    "tudo bem", "tudo bom", "td bem", "tdb",
    "como vai", "como vc ta", "como você está",
    "beleza", "blz", "suave", "tranquilo",
)

REQUEST_PATTERNS: tuple[str, ...] = (
    "me ajuda", "preciso de", "preciso q", "preciso que",
    "pode fazer", "pode me", "manda pra", "manda para",
    "me passa", "me manda", "me envia",
    "vem cá", "vem ca", "vem aqui",
    "liga pra", "liga para", "me liga",
    "responde", "responda", "fala cmg", "fala comigo",
)

ACKNOWLEDGMENTS: frozenset[str] = frozenset({
    "ok", "okay", "k", "kk", "kkk", "kkkk",
    "sim", "não", "nao", "ss", "nn",
    "ah", "ahh", "aham", "uhum", "hm", "hmm",
    "ta", "tá", "blz", "beleza",
    "entendi", "entendo", "certo", "show",
    "massa", "top", "nice", "legal", "dahora",
    "haha", "hehe", "rs", "rsrs",
    "👍", "👌", "✅", "😊", "😂", "🤣", "❤️",
})

# A message made only of laughter ("kkkkkkk", "hahaha", "rsrsrs").
LAUGH_ONLY_REGEX = re.compile(r"^(?:k{2,}|(?:ha){2,}h?|(?:he){2,}h?|(?:rs)+|(?:ks)+k?)$")

STATEMENT_PATTERNS: tuple[str, ...] = (
    "tô indo", "to indo", "já vou", "ja vou",
    "cheguei", "saí", "sai",
    "tô aqui", "to aqui", "estou aqui",
    "vou dormir", "boa noite", "até amanhã",
    "depois te falo", "já te aviso", "te aviso",
)

EXPECTS_REPLY_SUFFIXES: tuple[str, ...] = ("?", "né", "ne", "sabe")

EXPECTS_REPLY_PATTERNS: tuple[str, ...] = (
    "e vc", "e você", "e tu",
    "tb né", "também né", "concorda",
    "o que acha", "oq acha", "q acha",
)

# =============================================================================
# Group participation
# =============================================================================

ANSWERABLE_QUESTION_PATTERNS: tuple[str, ...] = (
    "alguém sabe", "alguem sabe",
    "vocês sabem", "voces sabem",
    "quem sabe", "quem conhece",
    "alguém já", "alguem ja",
    "vocês já", "voces ja",
    "tem alguém", "tem alguem",
    "alguém pode", "alguem pode",
    "quem pode", "quem consegue",
    "como faz", "como que faz",
    "qual é", "qual o",
    "onde", "quando", "quanto",
    "recomenda", "recomendam",
    "indica", "indicam",
    "conhece", "conhecem",
    "já usou", "ja usou", "já usaram", "ja usaram",
)

KEYWORD_STOP_WORDS: frozenset[str] = frozenset({
    "o", "a", "os", "as", "um", "uma", "de", "da", "do", "em", "na", "no",
    "e", "é", "que", "para", "com", "não", "nao", "por", "se", "mas",
    "como", "mais", "já", "ja", "muito", "isso", "esse", "essa",
})

INTEREST_KEYWORDS: tuple[str, ...] = (
    # Tech
    "código", "code", "programação", "programming", "bug", "deploy", "api",
    "javascript", "python", "swift", "react", "vue", "node",
    # Work
    "trabalho", "projeto", "reunião", "meeting", "deadline", "cliente",
    # Social
    "festa", "bar", "cerveja", "churrasco", "futebol", "jogo",
    # General
    "dinheiro", "viagem", "carro", "casa", "comida", "filme", "série",
)

REPLY_MARKERS: tuple[str, ...] = (
    "replied to your message",
    "replying to you",
    "reply to your",
    "in reply to you",
    "respondeu à sua mensagem",
    "respondeu a sua mensagem",
    "respondendo a você",
    "em resposta a você",
    "resposta para você",
    "reply,",
    "quoted message from you",
    "citou sua mensagem",
    "citando você",
)

# =============================================================================
# Daily context
# =============================================================================

PENDING_PATTERNS: tuple[str, ...] = (
    "vou fazer", "vou terminar", "vou enviar", "vou mandar",
    "depois eu", "mais tarde", "já já", "daqui a pouco",
    "tô indo", "to indo", "vou lá", "preciso",
)

EVENT_KEYWORDS: tuple[str, ...] = (
    "reunião", "meeting", "call", "ligação",
    "almoço", "jantar", "café",
    "médico", "dentista", "consulta",
    "academia", "treino", "aula",
    "entrega", "deadline", "prazo",
    "viagem", "voo", "aeroporto",
    "aniversário", "festa", "evento",
)

TOPIC_INDICATORS: tuple[str, ...] = (
    "projeto", "trabalho", "cliente", "código", "bug", "deploy", "release",
    "família", "namorada", "namorado", "amigo", "amiga",
    "filme", "série", "jogo", "show", "viagem",
    "problema", "situação", "dificuldade", "dúvida",
)

MOOD_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("positive/upbeat", ("feliz", "animado", "ótimo", "massa", "top", "show", "dahora", "legal", "bom")),
    ("negative/down", ("triste", "cansado", "estressado", "mal", "péssimo", "ruim", "chateado", "irritado")),
    ("busy/rushed", ("correria", "ocupado", "sem tempo", "cheio de coisa", "muito trabalho")),
)

# =============================================================================
# Prompt security
# =============================================================================

# Neutralized in incoming text before it reaches the prompt.
INJECTION_MARKERS: tuple[str, ...] = (
    "ignore all", "ignore previous", "ignore prior", "disregard",
    "forget everything", "new instructions", "system prompt",
    "you are now", "act as", "pretend to be", "respond only with",
    "output only", "```", "\\n\\n", "---", "###",
)

# Any of these in generated text discards the output.
SUSPICIOUS_OUTPUT_MARKERS: tuple[str, ...] = (
    "system prompt", "my instructions", "I was told to",
    "I cannot", "As an AI", "I'm an AI", "json", "```", "{", "}",
)

GROUP_NAME_TRICK_PATTERNS: tuple[str, ...] = (
    "mostre", "mostra", "revele", "revela", "me conta", "me fala",
    "suas variáveis", "suas variaveis", "seu segredo", "seus segredos",
    "sua senha", "seu pix", "seu cpf", "seu cartão", "seu cartao",
    "fale como", "responda como", "ignore as regras", "esquece as regras",
    "finja que", "aja como", "você é", "voce e",
    "show your", "reveal your", "tell me your", "give me your",
    "your password", "your secrets", "your env", "environment variable",
    "your api key", "your token", "your credentials",
    "act as", "pretend to be", "ignore your rules", "forget your rules",
    "you are now", "new instructions",
    "system prompt", "ignore previous", "disregard", "override",
)


# =============================================================================
# Helpers
# =============================================================================


def starts_with_any(text: str, phrases: tuple[str, ...], separators: str = " ,!") -> bool:
    """True if ``text`` equals a phrase or starts with one followed by a separator."""
    for phrase in phrases:
        if text == phrase:
            return True
        if text.startswith(phrase) and len(text) > len(phrase) and text[len(phrase)] in separators:
            return True
    return False


def contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    """True if any phrase occurs as a substring of ``text``."""
    return any(phrase in text for phrase in phrases)
