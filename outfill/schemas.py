from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReferenceImage(_WireModel):
    bytes_base64_encoded: str


class MaskImageConfig(_WireModel):
    mask_mode: Literal["MASK_MODE_USER_PROVIDED"] = "MASK_MODE_USER_PROVIDED"
    dilation: float = Field(ge=0.0, le=1.0)


class ReferenceImageRef(_WireModel):
    reference_type: Literal["REFERENCE_TYPE_RAW", "REFERENCE_TYPE_MASK"]
    reference_id: int
    reference_image: ReferenceImage
    mask_image_config: MaskImageConfig | None = None


class FillInstance(_WireModel):
    prompt: str = ""
    reference_images: list[ReferenceImageRef] = Field(min_length=2, max_length=2)


class EditConfig(_WireModel):
    base_steps: int = Field(gt=0)


class FillParameters(_WireModel):
    edit_config: EditConfig
    edit_mode: Literal["EDIT_MODE_OUTPAINT"] = "EDIT_MODE_OUTPAINT"
    sample_count: int = 1


class FillRequest(_WireModel):
    instances: list[FillInstance] = Field(min_length=1, max_length=1)
    parameters: FillParameters

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Prediction(_WireModel):
    bytes_base64_encoded: str | None = None


class FillResponse(_WireModel):
    predictions: list[Prediction] = Field(default_factory=list)

    def first_image_b64(self) -> str | None:
        if not self.predictions:
            return None
        return self.predictions[0].bytes_base64_encoded or None
