"""Admin/guest session gate and the explicit admin provisioning step."""
import logging
from typing import Dict, MutableMapping, Optional

from ..errors import AuthError

logger = logging.getLogger('mcu_rankings.session')

UNAUTHENTICATED = 'unauthenticated'
ADMIN = 'admin'
GUEST = 'guest'

STATES = (UNAUTHENTICATED, ADMIN, GUEST)

INCORRECT_PASSWORD = 'Incorrect admin password'


def provision_admin(auth, email: str, password: str) -> Dict:
    """Create the fixed admin account.  Run once, outside the login path.

    Raises:
        AuthError: The account exists already or the backend refused.
    """
    user = auth.sign_up(email, password)
    logger.info("Provisioned admin account %s", email)
    return user


class SessionGate:
    """Tracks whether the visitor is the admin, a guest, or undecided.

    State lives in *store* (a dict, or Flask's ``session``) under
    ``session_state``, ``access_token`` and ``user``; only the transition
    methods below write to it.

    Args:
        auth:        Auth backend (``sign_in_with_password`` / ``get_user`` /
                     ``sign_out``).
        admin_email: The single admin account's email.
        store:       Mutable mapping holding the state.
    """

    def __init__(self, auth, admin_email: str, store: MutableMapping) -> None:
        self._auth = auth
        self._admin_email = admin_email
        self._store = store

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        state = self._store.get('session_state', UNAUTHENTICATED)
        return state if state in STATES else UNAUTHENTICATED

    @property
    def is_admin(self) -> bool:
        return self.state == ADMIN

    @property
    def is_guest(self) -> bool:
        return self.state == GUEST

    @property
    def show_login_modal(self) -> bool:
        return self.state == UNAUTHENTICATED

    @property
    def can_edit(self) -> bool:
        return self.is_admin

    @property
    def access_token(self) -> Optional[str]:
        return self._store.get('access_token') if self.is_admin else None

    @property
    def user(self) -> Optional[Dict]:
        return self._store.get('user') if self.is_admin else None

    def as_dict(self) -> Dict:
        return {
            'state': self.state,
            'is_admin': self.is_admin,
            'read_only': not self.can_edit,
            'user': self.user,
        }

    def _set(self, state: str, access_token: Optional[str] = None,
             user: Optional[Dict] = None) -> None:
        self._store['session_state'] = state
        if access_token:
            self._store['access_token'] = access_token
        else:
            self._store.pop('access_token', None)
        if user:
            self._store['user'] = user
        else:
            self._store.pop('user', None)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def restore(self) -> str:
        """Re-check a persisted admin credential at load time.

        A token the auth backend no longer accepts drops the visitor back to
        the login modal.  Returns the resulting state.
        """
        if self._store.get('session_state') != ADMIN:
            return self.state
        token = self._store.get('access_token')
        if not token:
            self._set(UNAUTHENTICATED)
            return self.state
        try:
            user = self._auth.get_user(token)
        except AuthError as exc:
            logger.info("Stored session rejected: %s", exc.message)
            self._set(UNAUTHENTICATED)
            return self.state
        self._set(ADMIN, access_token=token, user=user)
        return self.state

    def login(self, password: str) -> Dict:
        """Sign in as the admin account.

        Returns:
            The signed-in user.

        Raises:
            AuthError: ``'Incorrect admin password'`` for rejected
                credentials; any other failure keeps its own message.
        """
        if not password:
            raise AuthError(INCORRECT_PASSWORD, code=AuthError.INVALID_CREDENTIALS)
        try:
            result = self._auth.sign_in_with_password(self._admin_email, password)
        except AuthError as exc:
            if exc.is_invalid_credentials:
                logger.info("Admin login rejected")
                raise AuthError(INCORRECT_PASSWORD, code=exc.code) from exc
            logger.error("Auth error: %s", exc.message)
            if exc.code == 'network_error':
                message = f'Unable to reach authentication service: {exc.message}'
            else:
                message = f'Unable to sign in: {exc.message}'
            raise AuthError(message, code=exc.code) from exc
        self._set(ADMIN, access_token=result.get('access_token'), user=result.get('user'))
        logger.info("Admin signed in")
        return result.get('user') or {}

    def continue_as_guest(self) -> None:
        self._set(GUEST)

    def sign_out(self) -> None:
        """Drop back to the login modal, revoking the token when possible."""
        token = self._store.get('access_token')
        if token:
            try:
                self._auth.sign_out(token)
            except AuthError as exc:
                logger.warning("Sign-out could not revoke token: %s", exc.message)
        self._set(UNAUTHENTICATED)
