"""AgentFlow test suite."""
