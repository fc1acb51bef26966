"""
Settings class for the OSQP engine
"""

# Fields OSQP can change on a live session through ``update_settings``.
UPDATABLE_FIELDS = (
    'eps_abs', 'eps_rel', 'eps_prim_inf', 'eps_dual_inf', 'max_iter',
    'time_limit', 'rho', 'alpha', 'polishing', 'verbose', 'warm_starting',
)


class Settings:
    """
    Configuration settings for the OSQP engine.

    A Settings object is always fully populated with the engine defaults;
    change individual fields after construction.

    Attributes
    ----------
    eps_abs : float
        Absolute convergence tolerance (default: 1e-3)
    eps_rel : float
        Relative convergence tolerance (default: 1e-3)
    eps_prim_inf : float
        Primal infeasibility tolerance (default: 1e-4)
    eps_dual_inf : float
        Dual infeasibility tolerance (default: 1e-4)
    max_iter : int
        Maximum number of ADMM iterations (default: 4000)
    time_limit : float
        Maximum time in seconds (default: 1e10, i.e. disabled)
    scaling : int
        Number of Ruiz scaling iterations, 0 disables scaling (default: 10)
    polishing : bool
        Polish the ADMM solution (default: False)
    rho : float
        ADMM step size (default: 0.1)
    sigma : float
        ADMM regularization (default: 1e-6)
    alpha : float
        ADMM relaxation parameter (default: 1.6)
    adaptive_rho : bool
        Adapt rho during the iterations (default: True)
    warm_starting : bool
        Start from the previous solution on re-solves (default: True)
    verbose : bool
        Let the engine print its iteration log (default: False)

    Examples
    --------
    >>> settings = Settings.defaults()
    >>> settings.eps_abs = 1e-6
    >>> settings.max_iter = 10000
    """

    def __init__(self):
        self.eps_abs = 1e-3
        self.eps_rel = 1e-3
        self.eps_prim_inf = 1e-4
        self.eps_dual_inf = 1e-4
        self.max_iter = 4000
        self.time_limit = 1e10
        self.scaling = 10
        self.polishing = False
        self.rho = 0.1
        self.sigma = 1e-6
        self.alpha = 1.6
        self.adaptive_rho = True
        self.warm_starting = True
        self.verbose = False

    @classmethod
    def defaults(cls) -> 'Settings':
        """Create Settings holding the engine defaults"""
        return cls()

    def __repr__(self):
        return (f"Settings(eps_abs={self.eps_abs}, "
                f"eps_rel={self.eps_rel}, "
                f"max_iter={self.max_iter}, "
                f"time_limit={self.time_limit})")

    def __eq__(self, other):
        if not isinstance(other, Settings):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def copy(self) -> 'Settings':
        return Settings.from_dict(self.to_dict())

    @classmethod
    def from_dict(cls, d):
        """Create Settings from dictionary"""
        settings = cls()
        known = settings.to_dict()
        for key, value in d.items():
            if key in known:
                setattr(settings, key, value)
        return settings

    def to_dict(self):
        """Convert to dictionary (the keyword set handed to the engine)"""
        return {
            'eps_abs': self.eps_abs,
            'eps_rel': self.eps_rel,
            'eps_prim_inf': self.eps_prim_inf,
            'eps_dual_inf': self.eps_dual_inf,
            'max_iter': self.max_iter,
            'time_limit': self.time_limit,
            'scaling': self.scaling,
            'polishing': self.polishing,
            'rho': self.rho,
            'sigma': self.sigma,
            'alpha': self.alpha,
            'adaptive_rho': self.adaptive_rho,
            'warm_starting': self.warm_starting,
            'verbose': self.verbose,
        }

    def diff(self, other: 'Settings'):
        """Return the fields of ``self`` whose values differ from ``other``"""
        mine = self.to_dict()
        theirs = other.to_dict()
        return {key: value for key, value in mine.items() if theirs[key] != value}
