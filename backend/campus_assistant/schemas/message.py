"""Inbound message and WhatsApp webhook schemas"""
from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


DISPLAY_NAME_MAX_LENGTH = 120


class InboundMessage(BaseModel):
    """One inbound chat message as seen by the router"""
    sender: str = Field(..., min_length=1, max_length=30)
    text: str = ""
    message_id: str | None = Field(default=None, max_length=200)
    display_name: str | None = Field(default=None, max_length=DISPLAY_NAME_MAX_LENGTH)


class WhatsAppText(BaseModel):
    body: str = ""


class WhatsAppMessage(BaseModel):
    id: str
    from_: str = Field(..., alias="from")
    type: str = "text"
    text: WhatsAppText | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore", populate_by_name=True)


class WhatsAppProfile(BaseModel):
    name: str | None = None


class WhatsAppContact(BaseModel):
    wa_id: str | None = None
    profile: WhatsAppProfile | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")


class WhatsAppChangeValue(BaseModel):
    messaging_product: str | None = None
    contacts: list[WhatsAppContact] = Field(default_factory=list)
    messages: list[WhatsAppMessage] = Field(default_factory=list)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")


class WhatsAppChange(BaseModel):
    field: str | None = None
    value: WhatsAppChangeValue = Field(default_factory=WhatsAppChangeValue)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")


class WhatsAppEntry(BaseModel):
    id: str | None = None
    changes: list[WhatsAppChange] = Field(default_factory=list)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")


class WhatsAppWebhookPayload(BaseModel):
    object: str | None = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    def inbound_messages(self) -> list[InboundMessage]:
        """Flatten text messages, skipping non-text events"""
        out: list[InboundMessage] = []
        if self.object != "whatsapp_business_account":
            return out
        for entry in self.entry:
            for change in entry.changes:
                names: dict[str, str] = {}
                for contact in change.value.contacts:
                    if not (contact.wa_id and contact.profile and contact.profile.name):
                        continue
                    # truncated to the column size
                    name = contact.profile.name.strip()[:DISPLAY_NAME_MAX_LENGTH]
                    if name:
                        names[contact.wa_id] = name
                for msg in change.value.messages:
                    if msg.type != "text" or msg.text is None:
                        continue
                    out.append(
                        InboundMessage(
                            sender=msg.from_,
                            text=msg.text.body,
                            message_id=msg.id,
                            display_name=names.get(msg.from_),
                        )
                    )
        return out
