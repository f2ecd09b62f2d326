"""
System prompt assembly for the generator.

Builds the prompt sent with every chat completion: the base template from
`prompts/base.md`, a tone directive, a persona line for the caller and the
organization variables the model may quote.
"""
import logging
import os
import re
from typing import Optional

from . import config

logger = logging.getLogger(__name__)

TONE_URGENT = "urgente"
TONE_FORMAL = "formal"
TONE_FRIENDLY = "amable"

URGENCY_MARKERS = (
    "urgente",
    "ahora",
    "ya",
    "por favor rápido",
    "lo antes posible",
    "apúrate",
    "apurate",
)

# Substring match, same as the marker list reads (e.g. "ya" also hits "playa")
_URGENCY_RE = re.compile("(" + "|".join(re.escape(m) for m in URGENCY_MARKERS) + ")")

_LEAD_RE = re.compile(r"(asociar|hacerme socio|quiero ser socio|afiliar|inscribirme|formulario)")

TONE_BLOCKS = {
    TONE_URGENT: "Tono: URGENTE. Respuestas breves, directas, pasos accionables.",
    TONE_FORMAL: "Tono: FORMAL. Sé correcto y completo.",
    TONE_FRIENDLY: "Tono: AMABLE. Cercano y claro.",
}


def detect_tone(user_text: Optional[str]) -> str:
    """Return 'urgente' when the message carries an urgency marker, else the configured default."""
    t = str(user_text or "").lower()
    if _URGENCY_RE.search(t):
        return TONE_URGENT
    return config.DEFAULT_TONE or TONE_FRIENDLY


def is_lead_intent(text: Optional[str]) -> bool:
    """True when a non-member message reads like a request to join."""
    return bool(_LEAD_RE.search(str(text or "").lower()))


def temperature_for(tone: str) -> float:
    return 0.1 if tone == TONE_URGENT else 0.3


def load_base_template(path: str = None) -> str:
    path = path or config.BASE_PROMPT_PATH
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    return f"Rol: Asistente de {config.ORG_NAME or 'ACIACAM'} (San Luis, AR)."


def build_system_prompt(
    is_member: bool,
    name: Optional[str],
    tone: str,
    base_path: str = None,
) -> str:
    """Assemble base template, tone block, persona and variables."""
    base = load_base_template(base_path)
    tone_block = TONE_BLOCKS.get(tone, TONE_BLOCKS[TONE_FRIENDLY])

    if is_member:
        persona = f"Contexto del usuario: SOCIO{f' ({name})' if name else ''}."
    else:
        persona = "Contexto del usuario: INTERESADO."

    variables = "\n".join([
        f"Organización: {config.ORG_NAME or 'ACIACAM'}",
        f"Sede: {config.SEDE_DIRECCION or 'Sede ACIACAM, San Luis'}",
        f"Cuota mensual: ${config.CUOTA_MENSUAL or '80000'}",
    ])

    return f"{base}\n---\n{tone_block}\n{persona}\n---\nVariables:\n{variables}"
