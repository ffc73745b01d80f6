from typing import Any, Dict, Iterable, List, Tuple

SENSITIVE_KEYS = {
    'password', 'secret', 'key', 'token',
    'api_key', 'apikey', 'auth', 'credential',
}

# Keys that look sensitive by name but only carry public material.
PUBLIC_KEYS = {'app_env_encrypt_pubkey', 'env_pubkey', 'pubkey'}


def mask_value(v: str) -> str:
    if len(v) > 6:
        return f"{v[:2]}{'*' * (len(v) - 4)}{v[-2:]}"
    return '*' * len(v)


def _is_sensitive(k: str) -> bool:
    k = k.lower()
    return k not in PUBLIC_KEYS and any(sens in k for sens in SENSITIVE_KEYS)


def mask_sensitive_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively mask sensitive values in dictionaries (and lists of them)."""
    masked = {}
    for k, v in data.items():
        if isinstance(v, dict):
            masked[k] = mask_sensitive_values(v)
        elif isinstance(v, list):
            masked[k] = [mask_sensitive_values(i) if isinstance(i, dict) else i for i in v]
        elif isinstance(v, str) and v and _is_sensitive(k):
            masked[k] = mask_value(v)
        else:
            masked[k] = v
    return masked


def mask_entries(entries: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Env entries are secrets regardless of name: every value is masked."""
    return [(name, mask_value(value)) for name, value in entries]
