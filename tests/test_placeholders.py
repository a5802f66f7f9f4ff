from qcmd.placeholders import fill_placeholders, find_placeholders

from .conftest import Answers


def test_find_placeholders_in_order() -> None:
    command = "aws ec2 describe-vpcs --vpc-ids {{VPC_ID}} --region {{REGION}} --profile {{VPC_ID}}"
    assert find_placeholders(command) == ["VPC_ID", "REGION"]


def test_lowercase_braces_are_not_placeholders() -> None:
    assert find_placeholders("echo {{name}} ${HOME} {x}") == []


def test_fill_replaces_every_occurrence() -> None:
    ask = Answers("vpc-123", "eu-west-1")
    command = "aws ec2 describe-vpcs --vpc-ids {{VPC_ID}} --region {{REGION}} && echo {{VPC_ID}}"
    assert fill_placeholders(command, prompt=ask) == (
        "aws ec2 describe-vpcs --vpc-ids vpc-123 --region eu-west-1 && echo vpc-123"
    )
    assert ask.questions == ["Enter value for VPC_ID", "Enter value for REGION"]


def test_fill_without_placeholders_does_not_prompt() -> None:
    ask = Answers()
    assert fill_placeholders("ls -la", prompt=ask) == "ls -la"
    assert ask.questions == []
