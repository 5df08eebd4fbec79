from servermon.targets.registry import (
    BodyAssertion,
    SshConfig,
    TargetEntry,
    TargetGroup,
    TargetKind,
    TargetRegistry,
    TargetSpec,
)

__all__ = [
    "BodyAssertion",
    "SshConfig",
    "TargetEntry",
    "TargetGroup",
    "TargetKind",
    "TargetRegistry",
    "TargetSpec",
]
