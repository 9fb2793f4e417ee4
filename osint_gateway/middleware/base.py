"""Base class shared by pipeline stages."""

from __future__ import annotations

from typing import Optional

from flask import Response


class Stage:
    """A single request-processing step.

    ``before`` runs when a request enters the stage; returning a response (or
    raising an HTTP error) ends the request there. ``after`` runs while the
    response travels back out, for every stage that was entered.
    """

    name = "stage"

    def before(self) -> Optional[Response]:
        return None

    def after(self, response: Response) -> Response:
        return response

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
