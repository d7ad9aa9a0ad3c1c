"""NPC Chat Bridge - Minecraft websocket events to Gemini character replies.

A small async service that:
- Accepts /connect websocket sessions from a Minecraft game server
- Picks out conversational title events sent by an NPC add-on
- Asks the completion service to reply in character
- Broadcasts the reply back into the game as a tellraw command
"""

__version__ = "0.1.0"
