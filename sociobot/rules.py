"""
Scripted replies used when the language model is disabled, fails, or
returns nothing.

Each membership branch is an ordered table of `Rule`s. The first rule whose
pattern matches the lowercased message wins; when none match, the branch
default is returned. Everything here is pure: no I/O, no config reads except
through `Persona.from_config()`.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern

from . import config

DEFAULT_SEDE = "Sede ACIACAM"


@dataclass(frozen=True)
class Persona:
    """Organization variables interpolated into the scripted replies."""
    org_name: str = "ACIACAM"
    sede: str = DEFAULT_SEDE
    cuota: str = "80000"

    @classmethod
    def from_config(cls) -> "Persona":
        return cls(
            org_name=config.ORG_NAME or "ACIACAM",
            sede=config.SEDE_DIRECCION or DEFAULT_SEDE,
            cuota=config.CUOTA_MENSUAL or "80000",
        )


ReplyBuilder = Callable[[Optional[str], Persona], str]


@dataclass(frozen=True)
class Rule:
    name: str
    pattern: Pattern
    build: ReplyBuilder

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


def _rule(name: str, pattern: str, build: ReplyBuilder) -> Rule:
    return Rule(name=name, pattern=re.compile(pattern), build=build)


MEMBER_RULES: List[Rule] = [
    _rule(
        "pickup",
        r"(retirar|retiro|pasar|sede)",
        lambda name, p: f"¡Hola {name or ''}! Podés retirar en la sede ({p.sede}). ¿Qué día te viene bien?",
    ),
    _rule(
        "delivery",
        r"(envio|enviar|delivery|mandar)",
        lambda name, p: f"¡Genial {name or ''}! Decime tu barrio/localidad y coordinamos el envío y el costo.",
    ),
    _rule(
        "schedule",
        r"(horario|cuando|día|dia)",
        lambda name, p: "Coordinemos: indicame un día aproximado y te paso opciones.",
    ),
]

NON_MEMBER_RULES: List[Rule] = [
    _rule(
        "dues",
        r"(cuota|pago|mensual)",
        lambda name, p: f"La cuota social es de ${p.cuota}/mes. Si te interesa, te guiamos para asociarte.",
    ),
    _rule(
        "requirements",
        r"(requisito|document|papel)",
        lambda name, p: "Requisitos: ser mayor de 18, DNI, y motivo terapéutico (te orientamos en el proceso).",
    ),
    _rule(
        "enrollment",
        r"(asociar|socios?|sumar|afiliar|inscribirme|formulario)",
        lambda name, p: (
            f"Para asociarte podés completar el formulario o acercarte a la sede ({p.sede}). "
            "¿Querés que te pase el link?"
        ),
    ),
    _rule(
        "location",
        r"(sede|direccion|dirección|donde|dónde)",
        lambda name, p: f"Sede: {p.sede}. Coordinamos horarios por este chat.",
    ),
]


def _member_default(name: Optional[str], p: Persona) -> str:
    return (
        f"¡Hola {name or 'socia/o'}! ¿Querés coordinar retiro en sede o un envío? "
        "También respondo dudas rápidas."
    )


def _non_member_default(name: Optional[str], p: Persona) -> str:
    return f"Soy el asistente de {p.org_name}. ¿Querés info sobre cómo asociarte, requisitos o la cuota social?"


def match_rule(is_member: bool, text: Optional[str]) -> Optional[Rule]:
    """Return the first rule of the branch that matches `text`, if any."""
    msg = (text or "").lower()
    for rule in MEMBER_RULES if is_member else NON_MEMBER_RULES:
        if rule.matches(msg):
            return rule
    return None


def respond(
    is_member: bool,
    name: Optional[str],
    text: Optional[str],
    persona: Optional[Persona] = None,
) -> str:
    """Scripted reply for a member/non-member message. Never empty."""
    persona = persona or Persona.from_config()
    rule = match_rule(is_member, text)
    if rule is not None:
        return rule.build(name, persona)
    if is_member:
        return _member_default(name, persona)
    return _non_member_default(name, persona)
