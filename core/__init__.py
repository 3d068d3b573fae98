"""
Core Components.

The storage-agnostic building blocks every Azure wrapper is built on.

Exports:
    RetryPolicyService: Bounded exponential-backoff executor (sync and async)
    RetryConfig: Immutable retry limits
    OptimisticPatchService: Read / mutate / conditional-write loop
"""

# Lazy imports keep `import core` free of logging setup
# These are imported on first access via __getattr__
_LAZY_IMPORTS = {
    'RetryPolicyService': '.retry_policy',
    'RetryConfig': '.retry_policy',
    'BackoffState': '.retry_policy',
    'backoff_delay': '.retry_policy',
    'OptimisticPatchService': '.optimistic_patch',
    'FieldMutation': '.optimistic_patch',
    'resolve_mutations': '.optimistic_patch',
}

def __getattr__(name):
    """Lazy import core classes to avoid circular dependencies."""
    if name in _LAZY_IMPORTS:
        from importlib import import_module
        module = import_module(_LAZY_IMPORTS[name], package='core')
        return getattr(module, name)
    raise AttributeError(f"module 'core' has no attribute '{name}'")

__all__ = list(_LAZY_IMPORTS)
