"""
Persisted key names and the scope each one lives in.

The sync scope follows the user across devices; everything else is local.
"""

SYNC = "sync"
LOCAL = "local"

BLOCK_LIST = "blockList"              # sync:  [domain]
DOMAIN_ID_MAP = "domainIdMap"         # local: {domain: rule id}
NEXT_RULE_ID = "nextRuleId"           # local: int
TEMPORARY_ALLOWS = "temporaryAllows"  # local: {domain: expiry epoch ms}
POMODORO_STATE = "pomodoroState"      # local: TimerState record
BLOCK_STATS = "blockStats"            # local: {domain: {YYYY-MM-DD: count}}
