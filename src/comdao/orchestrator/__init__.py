"""
Orchestrator - the contract call lifecycle.

- params:  split trailing options from positional args, merge defaults
- invoke:  constant reads and state-changing submissions
- confirm: receipt polling (submit -> poll -> resolve)
- events:  receipt log decoding against a topic table
- factory: per-network configuration, linking, new/at/deployed
"""
