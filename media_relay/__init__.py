"""
Media Relay - Twilio Media Streams to OpenAI Realtime API Bridge

This application answers phone calls arriving through Twilio and lets an
OpenAI Realtime model hold the conversation. Call audio is streamed to the
model as it arrives and the model's spoken replies are streamed back to the
caller, both in 8kHz mu-law so no transcoding is needed.

Architecture Overview:
- FastAPI server exposing the Twilio voice webhook and the Media Stream WebSocket
- One OpenAI Realtime WebSocket per call
- A per-call state machine deciding what each side is sent
- A registry of tools the model may call during the conversation

Key Components:
- bot: Realtime connection, protocol translation, relay state machine and session runner
- config: Application-wide configuration, constants, and logging setup
- models: Wire schemas, call state, relay events and commands
- tools: Tool registry and the tools registered by default
- websocket_manager: Hands each media stream to the relay bridge

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - PORT: Port to run the server on (default 8000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python -m media_relay.main
   ```

3. Point the Twilio phone number's voice webhook at
   https://your-server/incoming-call
"""
