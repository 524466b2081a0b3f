from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake case in python and in the database, camel case on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
