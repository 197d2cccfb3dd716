"""Gateway client: session state machine, dispatch routing and public actions."""
