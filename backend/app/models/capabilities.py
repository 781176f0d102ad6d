from pydantic import BaseModel, ConfigDict, Field


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Tool(_Descriptor):
    name: str
    description: str
    input_schema: dict = Field(default_factory=dict, alias="inputSchema")


class Resource(_Descriptor):
    uri: str
    name: str
    description: str = ""
    mime_type: str = Field(default="text/plain", alias="mimeType")


class PromptArgument(_Descriptor):
    name: str
    description: str = ""
    required: bool = False


class Prompt(_Descriptor):
    name: str
    description: str = ""
    arguments: tuple[PromptArgument, ...] = ()

    @property
    def required_arguments(self) -> list[str]:
        return [arg.name for arg in self.arguments if arg.required]
