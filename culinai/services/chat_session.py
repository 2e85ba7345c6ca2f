"""Free-form conversation with the chef assistant."""

from __future__ import annotations

import logging
from typing import List

from culinai.models.recipe import ChatMessage
from culinai.services.model_gateway import ModelGateway
from culinai.services.prompt_service import create_chat_system_prompt
from culinai.utils.exceptions import GeminiError, ValidationError

logger = logging.getLogger(__name__)

ERROR_REPLIES = {
    "en": "Sorry, I couldn't respond right now. Please try again.",
    "sk": "Prepáčte, momentálne nemôžem odpovedať. Skúste to prosím znova.",
    "it": "Spiacente, al momento non riesco a rispondere. Riprova.",
    "de": "Entschuldigung, ich kann gerade nicht antworten. Bitte versuche es erneut.",
    "es": "Lo siento, no puedo responder ahora mismo. Inténtalo de nuevo.",
    "fr": "Désolé, je ne peux pas répondre pour le moment. Veuillez réessayer.",
}


class ChatSession:
    """One conversation. The transcript is append-only."""

    def __init__(self, gateway: ModelGateway, language: str = "en") -> None:
        self.gateway = gateway
        self.language = language
        self.system_instruction = create_chat_system_prompt(language)
        self.transcript: List[ChatMessage] = []

    async def send(self, message: str) -> str:
        """
        Send a user message and return the reply text.

        A failed request still records the user's message, followed by a single
        error-flagged reply whose text is returned.

        Raises:
            ValidationError: If the message is blank
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message cannot be empty")

        text = message.strip()
        history = self._history()
        self.transcript.append(ChatMessage(role="user", text=text))

        try:
            reply = await self.gateway.invoke(
                text,
                system_instruction=self.system_instruction,
                history=history,
            )
        except GeminiError as e:
            logger.error(f"Chat reply failed: {e}", extra={"turns": len(self.transcript)})
            apology = ERROR_REPLIES.get(self.language, ERROR_REPLIES["en"])
            self.transcript.append(ChatMessage(role="model", text=apology, isError=True))
            return apology

        self.transcript.append(ChatMessage(role="model", text=reply))
        return reply

    def _history(self) -> List[ChatMessage]:
        """Completed user/model exchanges. A failed exchange is left out entirely."""
        history: List[ChatMessage] = []
        for question, answer in zip(self.transcript, self.transcript[1:]):
            if question.role == "user" and answer.role == "model" and not answer.isError:
                history.extend((question, answer))
        return history


def create_session(gateway: ModelGateway, language: str = "en") -> ChatSession:
    """Start a conversation in the given language."""
    return ChatSession(gateway, language)
