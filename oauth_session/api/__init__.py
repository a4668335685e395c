from .request import APIKeyAuthorizer, APIRequest, RequestAuthorizer

__all__ = ["APIRequest", "RequestAuthorizer", "APIKeyAuthorizer"]
