# clubvote/signals.py
# Change notifications for observers such as admin dashboards and the results cache.
# Receivers are called after the originating write has been committed.

from blinker import Namespace

_signals = Namespace()

# sender: election id
election_changed = _signals.signal('election-changed')
registration_changed = _signals.signal('registration-changed')
codes_changed = _signals.signal('codes-changed')
vote_cast = _signals.signal('vote-cast')

# sender: the IdentityProvider; kwargs: identity (None on sign-out), previous
identity_changed = _signals.signal('identity-changed')
