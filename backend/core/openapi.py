SUBSCRIPTION_WARNING_HEADER = "X-Subscription-Warning"


def add_subscription_warning_header(result, generator, request, public):
    """Document the trial warning header merchant responses may carry."""
    header = {
        "description": "Present on merchant responses while the trial has a few days left. "
                       "Example: 'Trial expires in 3 day(s)'",
        "schema": {"type": "string"},
    }

    # Ensure components exist
    result.setdefault("components", {})
    result["components"].setdefault("headers", {})
    result["components"]["headers"][SUBSCRIPTION_WARNING_HEADER] = header

    # Add to every response of every operation
    for path, path_item in result.get("paths", {}).items():
        for method, operation in path_item.items():
            if not isinstance(operation, dict):
                continue
            for response in operation.get("responses", {}).values():
                if isinstance(response, dict):
                    response.setdefault("headers", {})
                    response["headers"].setdefault(
                        SUBSCRIPTION_WARNING_HEADER,
                        {"$ref": f"#/components/headers/{SUBSCRIPTION_WARNING_HEADER}"},
                    )

    return result
