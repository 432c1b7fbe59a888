"""
Console Test Harness for FlowController (Functional Core)

Simple console loop to run a form conversation end to end.

Environment:
    FORMFLOW_FORM        Path to form JSON (default data/example_form.json)
    FORMFLOW_MODEL_NAME  HuggingFace model for sufficiency judgement
    FORMFLOW_NO_MODEL    Set to 1 to skip model loading (deterministic only)
"""

import json
import logging
import os
import sys

from formflow.core.flow_controller import FlowController
from formflow.core.form_loader import load_form_definition
from formflow.core.sufficiency_evaluator import SufficiencyEvaluator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_FORM_PATH = "data/example_form.json"
DEFAULT_MODEL_NAME = "mistralai/Mistral-7B-Instruct-v0.2"


def print_separator(char="=", length=60):
    print(char * length)


def print_debug_info(turn_result):
    """Print debug information from TurnResult"""
    debug = turn_result.debug
    if not debug.get('action'):
        return
    print("-" * 60)
    print(f"Field: {debug['field_key']} | action: {debug['action']} | "
          f"reason: {debug['reason']} | attempts: {debug['attempts']} | phase: {debug['phase']}")
    print("-" * 60)


def build_evaluator():
    """Sufficiency evaluator, with a local model unless FORMFLOW_NO_MODEL is set"""
    if os.environ.get("FORMFLOW_NO_MODEL") == "1":
        logger.info("FORMFLOW_NO_MODEL set, using deterministic checks only")
        return SufficiencyEvaluator(llm_client=None)

    # Imported here so the deterministic mode never loads torch
    from formflow.utils.hf_client import HuggingFaceClient

    model_name = os.environ.get("FORMFLOW_MODEL_NAME", DEFAULT_MODEL_NAME)
    hf_client = HuggingFaceClient(model_name=model_name, load_in_4bit=True)
    return SufficiencyEvaluator(llm_client=hf_client)


def main():
    """Run console conversation"""
    print_separator()
    print("FORMFLOW - CONSOLE TEST")
    print_separator()

    try:
        form = load_form_definition(os.environ.get("FORMFLOW_FORM", DEFAULT_FORM_PATH))
        print("\nInitializing modules (model loading may take 30 seconds)...")
        controller = FlowController.from_form(form, evaluator=build_evaluator())
    except Exception as e:
        print(f"\nFailed to initialize: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print_separator()
    print(f"STARTING: {form.name}")
    print_separator()
    print("Type 'skip' to skip optional questions, 'quit' to end early\n")

    # State is external - we hold it in this loop
    turn_result = controller.start_conversation()
    state = turn_result.state
    print(f"\nSystem: {turn_result.system_output}\n")

    while True:
        try:
            user_input = input("> ").strip()
            if not user_input:
                print("Please enter a response.\n")
                continue

            turn_result = controller.handle_turn(user_input, state)
            state = turn_result.state

            print(f"\nSystem: {turn_result.system_output}\n")
            print_debug_info(turn_result)

            if turn_result.conversation_complete:
                print_separator()
                if state.meta.abandoned:
                    print(f"CONVERSATION ENDED ({state.meta.abandoned_reason})")
                else:
                    print("FORM COMPLETE")
                print_separator()
                print(json.dumps(state.snapshot(), indent=2))
                break

        except KeyboardInterrupt:
            print("\n\nConversation interrupted by user (Ctrl+C)")
            break

    print_separator()
    print("Console test complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
