from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import FastAPI
from jinja2 import Environment, FileSystemLoader, select_autoescape

from utils.errors import InternalError

_HTTP_METHODS = ("get", "put", "post", "delete", "patch", "head", "options")


class IndexPageRenderer:
    """Renders the HTML landing page that lists the API endpoints."""

    def __init__(self, template_dir: Optional[str] = None, template_name: str = "index.html.j2"):
        if template_dir is None:
            template_dir = str(Path(__file__).parent / "templates")

        self.template_dir = template_dir
        self.template_name = template_name
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(["html", "j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @staticmethod
    def endpoints(app: FastAPI) -> List[Tuple[str, str, str]]:
        """(method, path, summary) for every operation in the OpenAPI document, in registration order."""
        rows = []
        for path, operations in app.openapi().get("paths", {}).items():
            for method in _HTTP_METHODS:
                operation = operations.get(method)
                if operation is None:
                    continue
                summary = (operation.get("description") or operation.get("summary") or "").strip()
                rows.append((method.upper(), path, summary.splitlines()[0] if summary else ""))
        return rows

    def render(self, app: FastAPI) -> str:
        try:
            template = self.env.get_template(self.template_name)
            return template.render(
                title=app.title,
                description=app.description,
                endpoints=self.endpoints(app),
            )
        except Exception as e:
            raise InternalError(f"Failed to render template {self.template_name}: {e}") from e
