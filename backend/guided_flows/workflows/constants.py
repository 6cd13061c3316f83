# /guided_flows/workflows/constants.py

# Reserved inputs understood by the transition engine.
CANCEL_TOKEN = "cancel"
SKIP_TOKEN = "skip"
CONTINUE_TOKEN = "__continue__"

# Reserved accumulated_data keys written around execution steps.
EXECUTION_RESULT_KEY = "_executionResult"
EXECUTION_ERROR_KEY = "_executionError"
