# Copyright (c) Nex-AGI. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""FastAPI integration.

Example:
    >>> from fastapi import Depends, FastAPI
    >>> app = FastAPI()
    >>> tickets = QueryConfig(allowed_filters=("status",))
    >>>
    >>> @app.get("/tickets")
    ... def list_tickets(params: Params = Depends(query_params(tickets))):
    ...     with Session(engine) as session:
    ...         return apply_query(SQLQueryBackend(session, Ticket), params, tickets).to_payload()
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from .errors import QueryError
from .models import Params, QueryConfig
from .params import parse_params


def params_from_request(request: Request, config: QueryConfig) -> Params:
    """Build ``Params`` from the request's query string."""
    return parse_params(request.query_params, config)


def query_params(config: QueryConfig) -> Callable[[Request], Params]:
    """Return a FastAPI dependency that parses ``Params`` for ``config``."""

    def dependency(request: Request) -> Params:
        return params_from_request(request, config)

    return dependency


def query_error_to_http(exc: QueryError) -> HTTPException:
    """Map a backend failure to a 500 response without leaking the cause."""
    return HTTPException(status_code=500, detail=f"Query failed during {exc.phase.value}")
