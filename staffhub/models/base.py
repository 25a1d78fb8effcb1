from typing import Annotated, Optional
from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _stringify_object_id(value):
    if isinstance(value, ObjectId):
        return str(value)
    return value


# Ids travel as strings; only the _id of a document is a real ObjectId in Mongo
PyObjectId = Annotated[str, BeforeValidator(_stringify_object_id)]


class EmbeddedModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    @classmethod
    def from_mongo(cls, document):
        if not document:
            return None
        return cls.model_validate(document)

    def to_mongo(self) -> dict:
        """Document body for insert; Mongo assigns the _id."""
        return self.model_dump(exclude={"id"})
