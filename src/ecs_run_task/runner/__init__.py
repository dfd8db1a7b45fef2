"""Launch-and-observe state machine for one-off ECS tasks.

Submission retries only resource-exhaustion rejections, polling retries
only waiter timeouts, and everything else fails fast. The stopped task's
container exit code becomes the process exit code.
"""
