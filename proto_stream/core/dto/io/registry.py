"""Schema Registry HTTP 경계 DTO

Registry REST API 의 JSON 본문을 그대로 표현합니다 (camelCase 별칭 유지).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from proto_stream.core.dto.internal.schema import SchemaDescriptor, SchemaReference

# 응답은 Registry 버전마다 필드가 늘어나므로 알 수 없는 필드는 무시
RESPONSE_CONFIG = ConfigDict(
    extra="ignore",
    frozen=True,
    populate_by_name=True,
)

REQUEST_CONFIG = ConfigDict(
    extra="forbid",
    frozen=True,
    populate_by_name=True,
)


class SchemaReferenceDTO(BaseModel):
    name: str
    subject: str
    version: int

    model_config = RESPONSE_CONFIG

    @classmethod
    def from_domain(cls, ref: SchemaReference) -> SchemaReferenceDTO:
        return cls(name=ref.name, subject=ref.subject, version=ref.version)

    def to_domain(self) -> SchemaReference:
        return SchemaReference(name=self.name, subject=self.subject, version=self.version)


class SchemaRequestDTO(BaseModel):
    """POST /subjects/{subject}/versions, /subjects/{subject}, /compatibility/... 본문"""

    schema_str: str = Field(..., alias="schema")
    schema_type: str = Field(..., alias="schemaType")
    references: list[SchemaReferenceDTO] = Field(default_factory=list)

    model_config = REQUEST_CONFIG

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True)


class SchemaResponseDTO(BaseModel):
    """GET /schemas/ids/{id}, GET /subjects/{subject}/versions/{version}, POST /subjects/{subject}"""

    schema_str: str = Field(..., alias="schema")
    # AVRO 스키마는 schemaType 필드가 생략됨
    schema_type: str = Field("AVRO", alias="schemaType")
    references: list[SchemaReferenceDTO] = Field(default_factory=list)
    id: int | None = None
    subject: str | None = None
    version: int | None = None

    model_config = RESPONSE_CONFIG

    def to_domain(self, *, schema_id: int | None = None) -> SchemaDescriptor:
        resolved_id = self.id if self.id is not None else schema_id
        if resolved_id is None:
            raise ValueError("schema response carries no id")
        return SchemaDescriptor(
            schema_id=resolved_id,
            schema_str=self.schema_str,
            subject=self.subject or "",
            version=self.version,
            schema_type=self.schema_type,
            references=tuple(r.to_domain() for r in self.references),
        )


class RegisterResponseDTO(BaseModel):
    id: int

    model_config = RESPONSE_CONFIG


class CompatibilityResponseDTO(BaseModel):
    is_compatible: bool = False
    messages: list[str] = Field(default_factory=list)

    model_config = RESPONSE_CONFIG


class CompatibilityConfigDTO(BaseModel):
    """GET|PUT /config/{subject}"""

    compatibility_level: str | None = Field(None, alias="compatibilityLevel")
    compatibility: str | None = None

    model_config = RESPONSE_CONFIG

    @property
    def level(self) -> str | None:
        return self.compatibility_level or self.compatibility


class ErrorResponseDTO(BaseModel):
    error_code: int | None = None
    message: str = ""

    model_config = RESPONSE_CONFIG
