"""Persona data models for YAML config validation."""

from pydantic import BaseModel, Field, field_validator


class Persona(BaseModel):
    """An assistant personality. The id is opaque to the streaming core."""

    id: str = Field(..., description="Persona identifier sent as persona_id")
    name: str = Field(..., description="Display name")
    avatar_emoji: str = Field(default="🤖", description="Avatar shown next to replies")
    description: str = Field(default="", description="Optional description")
    personality_prompt: str = Field(default="", description="Prompt the server uses for this persona")
    is_default: bool = Field(default=False, description="Preferred when no persona is selected")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("persona id must not be blank")
        return v


class PersonaCatalogue(BaseModel):
    """Root persona configuration loaded from YAML."""

    personas: list[Persona] = Field(default_factory=list)
    defaults: dict = Field(default_factory=dict)


LOCAL_DEFAULT_PERSONA = Persona(
    id="local-default",
    name="T.A.B.E. IA",
    avatar_emoji="🤖",
    description="Tu asistente académico inteligente",
    personality_prompt=(
        "Sos un asistente académico motivador, amigable y cercano. Usás lenguaje "
        "informal argentino. Celebrás los logros del estudiante y lo alentás cuando "
        "tiene dificultades. Sos empático pero también honesto."
    ),
    is_default=True,
)
