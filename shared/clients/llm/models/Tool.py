from pydantic import BaseModel


class ToolDefinition(BaseModel):
    """A function the model is forced to call, i.e. the schema of its structured output.

    Attributes:
        name:        Function name, e.g. "cited_answer".
        description: What the model should put into the call.
        parameters:  JSON schema of the arguments object.
    """

    name: str
    description: str
    parameters: dict
