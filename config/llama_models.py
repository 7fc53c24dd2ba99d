from __future__ import annotations

from dataclasses import dataclass, field

from huggingface_hub import hf_hub_url


@dataclass(frozen=True)
class RepositoryLink:
    label: str
    url: str


@dataclass(frozen=True)
class LlamaModelSpec:
    key: str
    display_name: str
    size_label: str
    description: str
    hf_repo_id: str
    hf_filename: str
    min_ram_gb: int
    param_size_b: float
    hf_revision: str = "main"
    repository_links: tuple[RepositoryLink, ...] = field(default_factory=tuple)

    @property
    def download_url(self) -> str:
        return hf_hub_url(repo_id=self.hf_repo_id, filename=self.hf_filename, revision=self.hf_revision)


def _hf_link(repo_id: str) -> RepositoryLink:
    return RepositoryLink(label=repo_id, url=f"https://huggingface.co/{repo_id}")


MODEL_SPECS: list[LlamaModelSpec] = [
    LlamaModelSpec(
        key="llama_3_2_3b_instruct_q4",
        display_name="Llama-3.2-3B Instruct",
        size_label="~2 GB (Q4) up to ~3.4 GB (Q8)",
        description="Instruct tune of Llama 3.2 with many quantizations that suit phones and small laptops.",
        hf_repo_id="bartowski/Llama-3.2-3B-Instruct-GGUF",
        hf_filename="Llama-3.2-3B-Instruct-Q4_K_M.gguf",
        min_ram_gb=4,
        param_size_b=3,
        repository_links=(
            _hf_link("bartowski/Llama-3.2-3B-Instruct-GGUF"),
            _hf_link("hugging-quants/Llama-3.2-3B-Instruct-Q4_K_M-GGUF"),
        ),
    ),
    LlamaModelSpec(
        key="llama_3_2_1b_instruct_q4",
        display_name="Llama-3.2-1B Instruct",
        size_label="< 1 GB up to ~1.3 GB depending on quant",
        description="Lighter Llama 3.2 variant for devices with limited resources.",
        hf_repo_id="bartowski/Llama-3.2-1B-Instruct-GGUF",
        hf_filename="Llama-3.2-1B-Instruct-Q4_K_M.gguf",
        min_ram_gb=2,
        param_size_b=1,
        repository_links=(_hf_link("bartowski/Llama-3.2-1B-Instruct-GGUF"),),
    ),
    LlamaModelSpec(
        key="phi_3_mini_4k_instruct_q4",
        display_name="Phi-3 Mini 4K Instruct",
        size_label="~2-4 GB depending on quant",
        description="Small model with solid instruction following and reasoning.",
        hf_repo_id="microsoft/Phi-3-mini-4k-instruct-gguf",
        hf_filename="Phi-3-mini-4k-instruct-q4.gguf",
        min_ram_gb=4,
        param_size_b=3.8,
        repository_links=(
            _hf_link("microsoft/Phi-3-mini-4k-instruct-gguf"),
            _hf_link("LiteLLMs/Phi-3-mini-4k-instruct-GGUF"),
        ),
    ),
    LlamaModelSpec(
        key="phi_4_mini_instruct_q4",
        display_name="Phi-4 Mini Instruct",
        size_label="~2-3 GB",
        description="Newer member of the Phi family with improved capabilities.",
        hf_repo_id="unsloth/Phi-4-mini-instruct-GGUF",
        hf_filename="Phi-4-mini-instruct-Q4_K_M.gguf",
        min_ram_gb=4,
        param_size_b=3.8,
        repository_links=(
            _hf_link("unsloth/Phi-4-mini-instruct-GGUF"),
            _hf_link("tensorblock/Phi-4-mini-instruct-GGUF"),
            _hf_link("lmstudio-community/Phi-4-mini-instruct-GGUF"),
        ),
    ),
    LlamaModelSpec(
        key="dolphin_3_llama_3_2_3b_q4",
        display_name="Dolphin3.0 Llama3.2-3B",
        size_label="~2 GB (Q4), larger variants available",
        description="Llama 3.2 fine-tune to try when the main variant does not fit the task.",
        hf_repo_id="bartowski/Dolphin3.0-Llama3.2-3B-GGUF",
        hf_filename="Dolphin3.0-Llama3.2-3B-Q4_K_M.gguf",
        min_ram_gb=4,
        param_size_b=3,
        repository_links=(_hf_link("bartowski/Dolphin3.0-Llama3.2-3B-GGUF"),),
    ),
    LlamaModelSpec(
        key="hermes_3_llama_3_2_3b_q4",
        display_name="Hermes-3 Llama3.2-3B",
        size_label="~3B params",
        description="Llama 3.2 variant tuned for reasoning and agent use.",
        hf_repo_id="NousResearch/Hermes-3-Llama-3.2-3B-GGUF",
        hf_filename="Hermes-3-Llama-3.2-3B.Q4_K_M.gguf",
        min_ram_gb=4,
        param_size_b=3,
        repository_links=(_hf_link("NousResearch/Hermes-3-Llama-3.2-3B-GGUF"),),
    ),
]

DEFAULT_MODEL_SPEC = LlamaModelSpec(
    key="deepseek_coder_1_3b_instruct_q4",
    display_name="DeepSeek Coder 1.3B Instruct",
    size_label="~0.9 GB",
    description="Small coding model fetched when nothing else has been chosen.",
    hf_repo_id="TheBloke/deepseek-coder-1.3b-instruct-GGUF",
    hf_filename="deepseek-coder-1.3b-instruct.Q4_K_M.gguf",
    min_ram_gb=2,
    param_size_b=1.3,
)
