# moviereco/api/deps.py
from fastapi import Request
from moviereco.core.wiring import Services


# Dependency for injecting the service graph built at startup into endpoints
def services_dep(request: Request) -> Services:
    return request.app.state.services
