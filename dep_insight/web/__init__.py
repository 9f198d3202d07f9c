from dep_insight.web.app import create_app

__all__ = ["create_app"]
