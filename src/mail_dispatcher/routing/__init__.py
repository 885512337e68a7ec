from mail_dispatcher.routing.engine import RoutingEngine
from mail_dispatcher.routing.subject import SubjectRoute, parse_subject

__all__ = ["RoutingEngine", "SubjectRoute", "parse_subject"]
