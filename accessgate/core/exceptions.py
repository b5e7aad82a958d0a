"""Exception taxonomy for the authorization engine.

Policy outcomes (`PolicyDenied` and subclasses) are legitimate denials and map
to 403. `UnknownFeature` and `StorageUnavailable` are infrastructure failures
and map to 5xx; they must never be turned into a plain deny.
"""
from fastapi import status


class AccessGateError(Exception):
    """Base exception for accessgate."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "error"

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class Unauthenticated(AccessGateError):
    """Raised when no principal can be established for the request."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class PolicyDenied(AccessGateError):
    """Raised when the engine denies a request."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "denied"


class NoRolesAssigned(PolicyDenied):
    code = "no_roles_assigned"

    def __init__(self, message: str = "no roles assigned"):
        super().__init__(message)


class RoleNotPermitted(PolicyDenied):
    code = "role_not_permitted"

    def __init__(self, message: str = "role not permitted"):
        super().__init__(message)


class PermissionDenied(PolicyDenied):
    code = "permission_denied"

    def __init__(self, message: str = "missing permission for feature"):
        super().__init__(message)


class UnknownFeature(AccessGateError):
    """Raised when a feature name has no match in the feature catalog."""
    code = "unknown_feature"

    def __init__(self, feature_name: str):
        self.feature_name = feature_name
        super().__init__(f"Unknown feature: {feature_name!r}")


class StorageUnavailable(AccessGateError):
    """Raised when the permission store cannot be reached."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_unavailable"


class InvalidFeatureReference(AccessGateError):
    """Raised when a role refers to feature ids the catalog does not know."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_feature"

    def __init__(self, feature_ids):
        self.feature_ids = sorted(feature_ids)
        super().__init__("One or more featureIds are invalid.")


class ResourceNotFound(AccessGateError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ResourceConflict(AccessGateError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


POLICY_DENIALS = {
    NoRolesAssigned.code: NoRolesAssigned,
    RoleNotPermitted.code: RoleNotPermitted,
    PermissionDenied.code: PermissionDenied,
}
