"""Service-level exceptions"""

class EntityNotFoundError(ValueError):
    """A requested model, log or version does not exist"""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
