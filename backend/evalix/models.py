from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_NEXT_AUTO_ID = 1001


class StudentRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    student_id: str = Field("", alias="studentId")
    document_number: str = Field("", alias="documentNumber")
    name: str = ""
    subject: str = ""
    n1: float = 0.0
    n2: float = 0.0
    n3: float = 0.0
    n4: float = 0.0
    average: float = 0.0


class Sheet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    year: int
    period: int
    next_auto_id: int = Field(DEFAULT_NEXT_AUTO_ID, alias="nextAutoId")
    auto_id_enabled: bool = Field(True, alias="autoIdEnabled")
    rows: list = Field(default_factory=list)


class SheetPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    next_auto_id: Optional[int] = Field(None, alias="nextAutoId")
    auto_id_enabled: Optional[bool] = Field(None, alias="autoIdEnabled")
    rows: Optional[list] = None

    def to_raw(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RowCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field("", alias="studentId")
    document_number: str = Field("", alias="documentNumber")
    name: str = ""
    subject: str = ""
    n1: Optional[Union[str, float]] = None
    n2: Optional[Union[str, float]] = None
    n3: Optional[Union[str, float]] = None
    n4: Optional[Union[str, float]] = None
