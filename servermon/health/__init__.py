"""Health subsystem — probes, fusion rules, SSH cache, orchestrator."""

from .engine import evaluate_target, execute_check
from .models import ApiOutcome, BodyMatch, CheckResult, SshOutcome, Status
from .scheduler import CheckOrchestrator, MonitorLoop, flatten_targets
from .ssh_cache import SshCache
