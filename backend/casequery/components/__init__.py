"""
Components layer.

Pure, side-effect free pieces of query resolution with explicit contracts
(see `contracts.py`): name standardization and matching, timeframe and entity
extraction, intent classification and answer formatting. The LLM system
prompts live next to them in `prompts/*.system`.
"""
