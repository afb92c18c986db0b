from sharing import clock
from sharing import config
from sharing import fetcher
from sharing import issuer
from sharing import observability
from sharing import policies
from sharing import signing

from sharing.clock import (Clock, SystemClock, to_ticks,)
from sharing.config import (RelayConfig,)
from sharing.fetcher import (Fetcher,)
from sharing.issuer import (CapabilityIssuer,)
from sharing.observability import (StepSpan, redact_uri, trace_step,)
from sharing.policies import (AccessPolicyStager, OWNER_POLICY_ID,
                              READ_ONLY_POLICY_ID,)
from sharing.signing import (CapabilitySigner,)

__all__ = ['AccessPolicyStager', 'CapabilityIssuer', 'CapabilitySigner',
           'Clock', 'Fetcher', 'OWNER_POLICY_ID', 'READ_ONLY_POLICY_ID',
           'RelayConfig', 'StepSpan', 'SystemClock', 'clock', 'config',
           'fetcher', 'issuer', 'observability', 'policies', 'redact_uri',
           'signing', 'to_ticks', 'trace_step']
