"""
Custodian Package

Authorization and risk-control core of a self-custodial wallet.

Core imports are lazily loaded so that importing a submodule does not pull in
the whole package. For direct module access, import from submodules:

    from custodian.policy import RollingLimit, ChangeControl
    from custodian.wallet import Wallet
    from custodian.exceptions import LimitExceededError
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'Wallet':
        from .wallet import Wallet
        return Wallet
    elif name == 'Roles':
        from .roles import Roles
        return Roles
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'custodian' has no attribute {name!r}")

__all__ = ['Wallet', 'Roles', 'load_config']
