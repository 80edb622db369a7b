"""
LightX Relay Pipeline

Six-stage relay per request:
1. Probe source image
2. Request upload slot
3. Fetch source bytes
4. Transfer bytes to the slot
5. Invoke the LightX tool
6. Poll order status until terminal
"""

from lightx_relay.pipeline.orchestrator import RelayOrchestrator

__all__ = ["RelayOrchestrator"]
