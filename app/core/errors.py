class PodiumError(Exception):
    """Error de dominio. Los routers lo traducen a HTTP."""

    status_code = 500
    transient = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotFound(PodiumError):
    status_code = 404


class Locked(PodiumError):
    status_code = 423


class ValidationFailed(PodiumError):
    status_code = 422


class ResultsUnavailable(PodiumError):
    # Aún no hay sesiones publicadas: reintentar más tarde
    status_code = 503
    transient = True


class UpstreamRateLimited(PodiumError):
    status_code = 503
    transient = True


class UpstreamError(PodiumError):
    status_code = 502
    transient = True
