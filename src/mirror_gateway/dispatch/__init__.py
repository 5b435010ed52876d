from mirror_gateway.dispatch.cursor import DispatchCursor
from mirror_gateway.dispatch.engine import DispatchEngine, build_request_path, candidate_indices

__all__ = [
    "DispatchCursor",
    "DispatchEngine",
    "build_request_path",
    "candidate_indices",
]
