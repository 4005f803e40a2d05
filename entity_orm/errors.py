class EntityOrmError(Exception):
    pass


class RelationShadowsAttribute(EntityOrmError, TypeError):
    pass


class UnknownEntity(EntityOrmError, LookupError):
    pass


class UnknownRelation(EntityOrmError, LookupError):
    pass


class GatewayNotBound(EntityOrmError, RuntimeError):
    pass


class SoftDeletesDisabled(EntityOrmError, TypeError):
    pass


class TemplateError(EntityOrmError, ValueError):
    pass
