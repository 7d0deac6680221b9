"""Tutor persona and prompt assembly."""

from typing import Optional

from tutor.core.schemas_chat import HistoryItem, MessageRole

DEFAULT_STUDENT_NAME = "estudiante"

TUTOR_PERSONA = """\
Eres un tutor experto en Derecho para estudiantes universitarios. Tu objetivo es ser empático, pedagógico y motivador.

REGLAS DE COMPORTAMIENTO:
- Recuerda siempre que el nombre del alumno es {student_name}. Refiérete a él/ella de forma natural.
- Usa un tono profesional pero cercano, como un mentor.
- No des la respuesta directamente de inmediato. Usa el método socrático: haz preguntas que guíen al estudiante a razonar.
- Si el estudiante explica un concepto, usa el método Feynman para comprobar si lo ha entendido (pídele que lo explique "como si tuviera 5 años").
- Fomenta el pensamiento crítico jurídico.
- Si se te proporciona documentación autorizada, básate en ella y cita los artículos en negrita."""

_HISTORY_ROLES = {MessageRole.USER.value, MessageRole.ASSISTANT.value}


def build_system_prompt(student_name: Optional[str] = None) -> str:
    """Persona instructions personalized with the student's name."""
    name = (student_name or "").strip() or DEFAULT_STUDENT_NAME
    return TUTOR_PERSONA.format(student_name=name)


def window_history(history: list[HistoryItem], max_messages: int) -> list[dict[str, str]]:
    """
    Keep the most recent prior messages, in original order.

    Only user/assistant entries with content are forwarded, so a client
    cannot inject extra system instructions through the history.
    """
    usable = [
        {"role": item.role, "content": item.content}
        for item in history
        if item.role in _HISTORY_ROLES and item.content and item.content.strip()
    ]
    if max_messages <= 0:
        return []
    return usable[-max_messages:]


def build_messages(
    message: str,
    history: list[HistoryItem],
    student_name: Optional[str] = None,
    context_block: str = "",
    max_history: int = 20,
) -> list[dict[str, str]]:
    """
    Assemble the completion request.

    Order: persona, optional context block, windowed history, new message.

    Args:
        message: The new user message
        history: Prior turns as sent by the client
        student_name: Name used to personalize the persona
        context_block: Wrapped retrieval context ("" for none)
        max_history: Max prior messages forwarded

    Returns:
        Role-tagged message dicts for the chat model
    """
    messages = [{"role": "system", "content": build_system_prompt(student_name)}]
    if context_block:
        messages.append({"role": "system", "content": context_block})
    messages.extend(window_history(history, max_history))
    messages.append({"role": "user", "content": message})
    return messages
